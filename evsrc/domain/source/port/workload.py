"""WorkloadClient port: reads and writes receive adapter workloads."""

from typing import Protocol

from evsrc.domain.source.model.workload import AdapterWorkload


class WorkloadClient(Protocol):
    """Storage of adapter workloads.

    ``get`` raises NotFoundError when no workload has that name. ``create`` and
    ``update`` return the workload as observed right after the write.
    ``delete`` of a workload that is already gone is not an error.
    """

    async def get(self, namespace: str, name: str) -> AdapterWorkload: ...

    async def create(self, workload: AdapterWorkload) -> AdapterWorkload: ...

    async def update(self, workload: AdapterWorkload) -> AdapterWorkload: ...

    async def delete(self, namespace: str, name: str) -> None: ...
