"""Découpage d'un ensemble d'enregistrements en partitions contiguës de taille bornée."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass


@dataclass(frozen=True)
class Partition:
    """Tranche [first_record, first_record + length) d'une relation."""

    number: int
    first_record: int
    length: int

    @property
    def last_record(self) -> int:
        return self.first_record + self.length - 1


class Partitioning:
    """
    Couverture complète de [0, element_count) par des partitions de partition_size
    éléments, plus une partition résiduelle éventuellement plus courte.

    Le premier élément de la première partition porte l'indice 0.
    """

    def __init__(self, element_count: int, partition_size: int) -> None:
        if element_count < 0:
            raise ValueError(f"element_count doit être >= 0 (got {element_count})")
        if partition_size < 1:
            raise ValueError(f"partition_size doit être > 0 (got {partition_size})")

        full, residual = divmod(element_count, partition_size)
        self.partitions: list[Partition] = [
            Partition(number=n, first_record=n * partition_size, length=partition_size) for n in range(full)
        ]
        if residual:
            self.partitions.append(Partition(number=full, first_record=full * partition_size, length=residual))

    def count_elements(self) -> int:
        return sum(p.length for p in self.partitions)

    def count_partitions(self) -> int:
        return len(self.partitions)

    def __iter__(self) -> Iterator[Partition]:
        return iter(self.partitions)

    def __len__(self) -> int:
        return len(self.partitions)
