"""Block height oracle for expiry checks."""

import structlog

logger = structlog.get_logger()


class Chain:
    """
    Monotonic block height counter.

    The registry never waits on time: expiry is a comparison against
    whatever height this reports when an operation runs.
    """

    def __init__(self, height: int = 0):
        if height < 0:
            raise ValueError("Block height cannot be negative")
        self._height = height

    def current_height(self) -> int:
        """Height the next operation is evaluated at."""
        return self._height

    def mine_block(self) -> int:
        """Advance by one block."""
        return self.mine_empty_blocks(1)

    def mine_empty_blocks(self, count: int) -> int:
        """Advance by `count` blocks and return the new height."""
        if count < 0:
            raise ValueError("Cannot mine a negative number of blocks")
        self._height += count
        logger.debug("Mined blocks", count=count, height=self._height)
        return self._height

    def advance_to(self, height: int) -> int:
        """Advance to an absolute height; moving backwards is refused."""
        if height < self._height:
            raise ValueError(
                f"Block height cannot decrease (at {self._height}, asked for {height})"
            )
        return self.mine_empty_blocks(height - self._height)
