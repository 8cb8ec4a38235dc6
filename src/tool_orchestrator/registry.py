# registry.py
# Aggregates tool descriptors from every connected provider and resolves a
# tool name to the provider that owns it.

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Iterable, Mapping, Protocol, runtime_checkable

from tool_orchestrator.errors import NoProvidersError, ToolInvocationError
from tool_orchestrator.models import ToolDescriptor

logger = logging.getLogger(__name__)

ToolFunction = Callable[[dict[str, Any]], Any] | Callable[[dict[str, Any]], Awaitable[Any]]


@runtime_checkable
class ToolProvider(Protocol):
    """Anything that can list tools and invoke them by name."""

    provider_id: str

    async def list_tools(self) -> list[ToolDescriptor]: ...

    async def invoke(self, tool_name: str, arguments: dict[str, Any]) -> Any: ...

    async def close(self) -> None: ...


@dataclass(frozen=True)
class LocalTool:
    function: ToolFunction
    description: str = ""
    input_schema: dict[str, Any] = field(default_factory=dict)


class LocalToolProvider:
    """
    In-process provider backed by plain callables.

    Each callable receives the argument dict. Synchronous callables are run
    in a worker thread so the caller is always suspended on the call.
    """

    def __init__(self, provider_id: str, tools: Mapping[str, LocalTool]) -> None:
        self.provider_id = provider_id
        self._tools = dict(tools)

    async def list_tools(self) -> list[ToolDescriptor]:
        return [
            ToolDescriptor(
                name=name,
                description=tool.description,
                input_schema=tool.input_schema,
                provider_id=self.provider_id,
            )
            for name, tool in self._tools.items()
        ]

    async def invoke(self, tool_name: str, arguments: dict[str, Any]) -> Any:
        tool = self._tools.get(tool_name)
        if tool is None:
            raise ToolInvocationError(tool_name, f"Tool '{tool_name}' not found on {self.provider_id}")
        try:
            if inspect.iscoroutinefunction(tool.function):
                return await tool.function(arguments)
            return await asyncio.to_thread(tool.function, arguments)
        except ToolInvocationError:
            raise
        except Exception as exc:
            raise ToolInvocationError(tool_name, str(exc)) from exc

    async def close(self) -> None:
        return None


@dataclass(frozen=True)
class RegistrySnapshot:
    """Read-only view of the registry, safe to share between concurrent runs."""

    descriptors: tuple[ToolDescriptor, ...]
    owners: Mapping[str, ToolProvider]

    def resolve(self, tool_name: str) -> ToolProvider | None:
        if not tool_name:
            return None
        return self.owners.get(tool_name)

    @property
    def tool_names(self) -> list[str]:
        return [descriptor.name for descriptor in self.descriptors]


class ToolRegistry:
    """
    Owns the set of providers and the descriptor catalogue.

    `refresh()` must run before `snapshot()` is useful. When two providers
    expose the same tool name, the first registered provider wins.
    """

    def __init__(self, providers: Iterable[ToolProvider] = ()) -> None:
        self._providers: list[ToolProvider] = []
        self._by_provider: dict[str, list[ToolDescriptor]] = {}
        self._snapshot = RegistrySnapshot(descriptors=(), owners=MappingProxyType({}))
        for provider in providers:
            self.add_provider(provider)

    @property
    def providers(self) -> list[ToolProvider]:
        return list(self._providers)

    def add_provider(self, provider: ToolProvider) -> None:
        if any(p.provider_id == provider.provider_id for p in self._providers):
            raise ValueError(f"Provider '{provider.provider_id}' is already registered.")
        self._providers.append(provider)

    async def refresh(self) -> RegistrySnapshot:
        """List tools from every provider and rebuild the snapshot."""
        if not self._providers:
            raise NoProvidersError("No tool providers are registered.")

        descriptors: list[ToolDescriptor] = []
        owners: dict[str, ToolProvider] = {}
        by_provider: dict[str, list[ToolDescriptor]] = {}

        for provider in self._providers:
            listed = await provider.list_tools()
            by_provider[provider.provider_id] = []
            for descriptor in listed:
                if descriptor.provider_id != provider.provider_id:
                    descriptor = descriptor.model_copy(update={"provider_id": provider.provider_id})
                by_provider[provider.provider_id].append(descriptor)
                if descriptor.name in owners:
                    logger.warning(
                        "Tool %r from %s shadowed by %s",
                        descriptor.name,
                        provider.provider_id,
                        owners[descriptor.name].provider_id,
                    )
                    continue
                owners[descriptor.name] = provider
                descriptors.append(descriptor)

        self._by_provider = by_provider
        self._snapshot = RegistrySnapshot(
            descriptors=tuple(descriptors), owners=MappingProxyType(owners)
        )
        logger.info(
            "Registry refreshed: %d tools from %d providers",
            len(descriptors),
            len(self._providers),
        )
        return self._snapshot

    def snapshot(self) -> RegistrySnapshot:
        return self._snapshot

    def resolve(self, tool_name: str) -> ToolProvider | None:
        return self._snapshot.resolve(tool_name)

    def tools_by_provider(self) -> dict[str, list[ToolDescriptor]]:
        return {pid: list(tools) for pid, tools in self._by_provider.items() if tools}

    def status(self) -> list[dict[str, Any]]:
        return [
            {
                "provider": provider.provider_id,
                "connected": provider.provider_id in self._by_provider,
                "tools": len(self._by_provider.get(provider.provider_id, [])),
            }
            for provider in self._providers
        ]

    async def close(self) -> None:
        for provider in self._providers:
            try:
                await provider.close()
            except Exception:
                logger.exception("Failed to close provider %s", provider.provider_id)
        self._by_provider = {}
        self._snapshot = RegistrySnapshot(descriptors=(), owners=MappingProxyType({}))
