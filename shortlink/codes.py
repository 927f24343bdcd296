"""Short code generation.

Two strategies:

- **sequential** (default): the next value of the store's durable counter,
  rendered in base 10. Unique across processes without any lock.
- **random**: a fixed-length alphanumeric code from nanoid (os.urandom
  backed). No uniqueness guarantee, so callers retry on DuplicateCodeError.

A non-empty custom code always wins and is returned as given; its uniqueness
is left to the store's insert.
"""

import logging

from nanoid import generate

from shortlink.config import CodeStrategy
from shortlink.exceptions import GenerationError, StoreError
from shortlink.store import LinkStore

__all__ = ["ALPHABET", "CodeGenerator"]

ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


class CodeGenerator:
    def __init__(
        self,
        store: LinkStore,
        strategy: CodeStrategy = CodeStrategy.SEQUENTIAL,
        random_length: int = 6,
        logger: logging.Logger | None = None,
    ) -> None:
        if random_length < 1:
            raise ValueError(f"random_length must be a positive integer, got {random_length!r}")
        self._store = store
        self.strategy = strategy
        self.random_length = random_length
        self._logger = logger or logging.getLogger("shortlink.codes")

    async def next(self, custom_code: str | None = None) -> str:
        if custom_code:
            return custom_code
        if self.strategy is CodeStrategy.RANDOM:
            return self.random_code()
        return await self.sequential_code()

    async def sequential_code(self) -> str:
        try:
            value = await self._store.next_sequence()
        except StoreError as exc:
            self._logger.error(f"Sequential code generation error: {exc}")
            raise GenerationError("Code generation error") from exc
        return str(value)

    def random_code(self) -> str:
        return generate(ALPHABET, self.random_length)
