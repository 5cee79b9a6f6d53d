"""
portfolio.py — Portfolio code registry.

Portfolio codes are a small closed integer range (1–10 unless configured
otherwise). validate_portfolio_code() is the guard run before any allocation.
"""

from utils.errors import InvalidPortfolioError

MIN_CODE = 1
MAX_CODE = 10
DEFAULT_PORTFOLIO_CODE = 1
DEFAULT_PORTFOLIO_NAME = "Main Portfolio"


def portfolio_bounds(config=None):
    """Return (min_code, max_code) from a Flask config mapping, or the defaults."""
    if config is None:
        return MIN_CODE, MAX_CODE
    return (
        int(config.get("PORTFOLIO_MIN_CODE", MIN_CODE)),
        int(config.get("PORTFOLIO_MAX_CODE", MAX_CODE)),
    )


def validate_portfolio_code(code, min_code=MIN_CODE, max_code=MAX_CODE) -> int:
    """
    Return the code as an int, or raise InvalidPortfolioError.

    ASCII integral strings ("3") are accepted since codes arrive from JSON bodies
    and query strings. Booleans, floats and anything non-numeric are not.
    """
    if isinstance(code, bool):
        raise InvalidPortfolioError(
            _range_message(min_code, max_code), portfolio_code=code
        )

    if isinstance(code, str):
        text = code.strip()
        if not (text.isascii() and text.isdigit()):
            raise InvalidPortfolioError(
                _range_message(min_code, max_code), portfolio_code=code
            )
        code = int(text)

    if not isinstance(code, int):
        raise InvalidPortfolioError(
            _range_message(min_code, max_code), portfolio_code=repr(code)
        )

    if code < min_code or code > max_code:
        raise InvalidPortfolioError(
            _range_message(min_code, max_code), portfolio_code=code
        )
    return code


def is_valid_portfolio_code(code, min_code=MIN_CODE, max_code=MAX_CODE) -> bool:
    try:
        validate_portfolio_code(code, min_code, max_code)
    except InvalidPortfolioError:
        return False
    return True


def valid_portfolio_codes(min_code=MIN_CODE, max_code=MAX_CODE) -> list:
    return list(range(min_code, max_code + 1))


def _range_message(min_code, max_code):
    return f"Portfolio code must be between {min_code} and {max_code}"
