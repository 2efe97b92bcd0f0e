"""Resolution and installation of the security header provider.

The provider is looked up through two strategies tried in order: the
installed package entry points, then a configured ``module:attribute``
import path. The first success is frozen into a `HeaderPolicy` and
installed once, as the outermost middleware, before the listener opens.
"""
import importlib
from dataclasses import dataclass
from importlib.metadata import entry_points
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Tuple

from fastapi import FastAPI
from starlette.concurrency import run_in_threadpool

from comercialhg.config.security import get_content_security_directives
from comercialhg.config.settings import Settings, get_settings
from comercialhg.utils.errors import HeaderPolicyResolutionError
from comercialhg.utils.logger import get_logger

logger = get_logger(__name__)

ENTRY_POINT_GROUP = "comercialhg.header_policies"
ENTRY_POINT_NAME = "default"


@dataclass(frozen=True)
class HeaderPolicy:
    """A resolved provider and the directive set it is configured with."""

    provider: Callable[..., Any]
    directives: Mapping[str, Tuple[str, ...]]
    source: str


class ProviderStrategy:
    """One way of locating the header provider."""

    name = "strategy"

    def resolve(self) -> Callable[..., Any]:
        raise NotImplementedError


class EntryPointStrategy(ProviderStrategy):
    """Look the provider up among installed package entry points."""

    name = "entry-point"

    def __init__(self, group: str = ENTRY_POINT_GROUP, entry_name: str = ENTRY_POINT_NAME):
        self.group = group
        self.entry_name = entry_name

    def resolve(self) -> Callable[..., Any]:
        matches = entry_points(group=self.group, name=self.entry_name)
        for entry_point in matches:
            return entry_point.load()
        raise LookupError(f"No entry point '{self.entry_name}' in group '{self.group}'")


class ImportPathStrategy(ProviderStrategy):
    """Import the provider from a ``package.module:attribute`` path."""

    name = "import-path"

    def __init__(self, path: str):
        self.path = path

    def resolve(self) -> Callable[..., Any]:
        if ":" in self.path:
            module_name, _, attribute = self.path.partition(":")
        else:
            module_name, _, attribute = self.path.rpartition(".")
        if not module_name or not attribute:
            raise ValueError(f"Invalid provider path: {self.path!r}")
        module = importlib.import_module(module_name)
        return getattr(module, attribute)


def default_strategies(settings: Optional[Settings] = None) -> Sequence[ProviderStrategy]:
    settings = settings or get_settings()
    return (
        EntryPointStrategy(),
        ImportPathStrategy(settings.header_policy_provider),
    )


async def resolve_header_policy(
    strategies: Optional[Iterable[ProviderStrategy]] = None,
    directives: Optional[Mapping[str, Tuple[str, ...]]] = None,
) -> HeaderPolicy:
    """
    Resolve the header provider with the first strategy that succeeds.

    Raises:
        HeaderPolicyResolutionError: If every strategy fails
    """
    strategies = tuple(strategies) if strategies is not None else default_strategies()
    directives = directives or get_content_security_directives()
    failures = []

    for strategy in strategies:
        try:
            provider = await run_in_threadpool(strategy.resolve)
        except Exception as e:
            logger.warning(
                "Header provider strategy failed",
                strategy=strategy.name,
                error=str(e),
            )
            failures.append(f"{strategy.name}: {e}")
            continue
        if not callable(provider):
            failures.append(f"{strategy.name}: provider is not callable")
            continue
        logger.info("Header provider resolved", strategy=strategy.name)
        return HeaderPolicy(provider=provider, directives=directives, source=strategy.name)

    raise HeaderPolicyResolutionError(
        "Could not resolve the security header provider ("
        + "; ".join(failures or ["no strategies configured"])
        + ")"
    )


def install_security_headers(app: FastAPI, policy: HeaderPolicy) -> bool:
    """
    Install the resolved provider as the outermost middleware.

    Only the first policy is installed; later calls leave the app as is.

    Returns:
        True if the policy was installed by this call
    """
    installed = getattr(app.state, "header_policy", None)
    if installed is not None:
        logger.warning(
            "Security headers already installed",
            installed_source=installed.source,
            ignored_source=policy.source,
        )
        return False

    app.add_middleware(policy.provider, directives=policy.directives)
    app.state.header_policy = policy
    logger.info("Security headers installed", source=policy.source)
    return True
