"""Token estimation for output batching."""

from functools import lru_cache
from typing import Callable, Literal, Union

import tiktoken

DEFAULT_ENCODING = "cl100k_base"

# (text, limit) -> token count when within limit, False when the text alone exceeds it
TokenEstimator = Callable[[str, float], Union[int, Literal[False]]]


@lru_cache(maxsize=None)
def _encoding(name: str) -> tiktoken.Encoding:
    return tiktoken.get_encoding(name)


def count_tokens(text: str, encoding_name: str = DEFAULT_ENCODING) -> int:
    # Special-token markers in scraped text are counted as ordinary text
    return len(_encoding(encoding_name).encode(text, disallowed_special=()))


def is_within_token_limit(
    text: str,
    limit: float,
    encoding_name: str = DEFAULT_ENCODING,
) -> Union[int, Literal[False]]:
    """Return the token count of *text*, or ``False`` when it exceeds *limit*."""
    count = count_tokens(text, encoding_name)
    return count if count <= limit else False


def make_estimator(encoding_name: str = DEFAULT_ENCODING) -> TokenEstimator:
    def estimate(text: str, limit: float) -> Union[int, Literal[False]]:
        return is_within_token_limit(text, limit, encoding_name)

    return estimate
