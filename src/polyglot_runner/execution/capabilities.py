from __future__ import annotations

import shutil
from dataclasses import dataclass

from ..languages import DEFAULT_REGISTRY, LanguageRegistry, ToolchainSpec


@dataclass(frozen=True, slots=True)
class ToolchainCapabilities:
    """Which host binaries a language needs and which of them are missing.

    Example:
        ```python
        caps = ToolchainCapabilities("c", ("gcc",), ())
        ```
    """

    language_id: str
    binaries: tuple[str, ...]
    missing: tuple[str, ...]

    @property
    def available(self) -> bool:
        """Return whether every required binary is on PATH.

        Example:
            ```python
            if caps.available:
                ...
            ```
        """
        return not self.missing


def required_binaries(spec: ToolchainSpec) -> tuple[str, ...]:
    """Return the host commands a toolchain invokes, skipping workspace artifacts.

    Example:
        ```python
        required_binaries(resolve("java"))
        ```
    """
    binaries: list[str] = []
    for template in (spec.compile_command, spec.run_command):
        if not template or "{" in template[0]:
            continue
        if template[0] not in binaries:
            binaries.append(template[0])
    return tuple(binaries)


def capabilities_for_language(spec: ToolchainSpec) -> ToolchainCapabilities:
    """Probe PATH for the binaries of one toolchain.

    Example:
        ```python
        caps = capabilities_for_language(resolve("python"))
        ```
    """
    binaries = required_binaries(spec)
    missing = tuple(name for name in binaries if shutil.which(name) is None)
    return ToolchainCapabilities(spec.language_id, binaries, missing)


def probe_toolchains(registry: LanguageRegistry = DEFAULT_REGISTRY) -> list[ToolchainCapabilities]:
    """Probe every registered toolchain.

    Example:
        ```python
        for caps in probe_toolchains():
            print(caps.language_id, caps.available)
        ```
    """
    return [capabilities_for_language(spec) for spec in registry]
