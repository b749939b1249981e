from typing import Iterator, List, Sequence, Tuple, TypeVar

T = TypeVar("T")


def split_batches(items: Sequence[T], max_size: int) -> Iterator[Tuple[int, List[T]]]:
    """Yield (offset, batch) pairs of at most max_size contiguous items.

    offset is the index of the batch's first item in items. Concatenating
    the batches in order gives back items.
    """
    if max_size < 1:
        raise ValueError(f"max_size must be at least 1, got {max_size}")
    for offset in range(0, len(items), max_size):
        yield offset, list(items[offset:offset + max_size])
