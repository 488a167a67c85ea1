from functools import reduce
from typing import Callable, Iterable, Tuple, TypeVar

T = TypeVar("T")


def pipe(*stages):
    """pipe(f, g, h)(x) == h(g(f(x))) — стадии применяются слева направо"""
    return reduce(lambda f, g: lambda x: g(f(x)), stages, lambda x: x)


def keep(predicate: Callable[[T], bool]) -> Callable[[Iterable[T]], Tuple[T, ...]]:
    """Стадия-фильтр: оставляет элементы, для которых predicate истинен"""
    return lambda items: tuple(filter(predicate, items))


def all_of(*predicates: Callable[[T], bool]) -> Callable[[T], bool]:
    """Конъюнкция предикатов; пустой список пропускает всё"""
    return lambda item: all(p(item) for p in predicates)
