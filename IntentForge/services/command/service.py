"""
Command Synthesis Service.

Serializes a component and its resolved parameters into a single-line
`adb shell am` invocation.
"""

from __future__ import annotations

from ...core.exceptions import NoComponentError
from ...core.logging import get_logger
from ...models.component import Component, ComponentKind
from ...models.intent import IntentParameter

logger = get_logger(__name__)

LAUNCHERS: dict[ComponentKind, str] = {
    ComponentKind.ACTIVITY: "adb shell am start",
    ComponentKind.PROVIDER: "adb shell am start",
    ComponentKind.SERVICE: "adb shell am startservice",
    ComponentKind.RECEIVER: "adb shell am broadcast",
}


def normalize_component_name(package: str, qualified_name: str) -> str:
    """Reduce a component class name to its package-relative `.Name` form.

    Handles fully qualified names (`com.app.Main`), manifest shorthand
    (`.Main`) and shorthand that repeats the package tail (`.app.Main` in
    `com.app`). The reduction is idempotent and the result always starts
    with a dot.
    """
    name = qualified_name.strip()
    if package and (name == package or name.startswith(package + ".")):
        name = name[len(package):]
    if not name.startswith("."):
        name = "." + name
    if not package:
        return name

    marker = f".{package}."
    index = name.rfind(marker)
    if index != -1:
        name = name[index + len(package) + 1:]

    tail = package.rsplit(".", 1)[-1]
    segments = name[1:].split(".")
    while len(segments) > 1 and segments[0] == tail:
        segments.pop(0)
    return "." + ".".join(segments)


class CommandBuilder:
    """Builds one `am` command line. Each builder belongs to a single command."""

    def __init__(self, launcher: str | None = None) -> None:
        self.launcher = launcher
        self._component: Component | None = None
        self._parameters: list[IntentParameter] = []
        self._extra_args: list[str] = []

    def set_component(self, component: Component) -> CommandBuilder:
        self._component = component
        return self

    def set_parameters(self, parameters: list[IntentParameter]) -> CommandBuilder:
        self._parameters = list(parameters)
        return self

    def add_extra_arg(self, arg: str) -> CommandBuilder:
        """Append a raw argument; it is emitted verbatim after the parameters."""
        if arg.strip():
            self._extra_args.append(arg.strip())
        return self

    def build(self) -> str:
        """Assemble the command.

        Raises:
            NoComponentError: If no component was set.
        """
        if self._component is None:
            raise NoComponentError(message="Cannot build a command without a component")

        component = self._component
        launcher = self.launcher or LAUNCHERS[component.kind]
        target = f"{component.package}/{normalize_component_name(component.package, component.qualified_name)}"

        parts = [launcher, "-n", target]
        parts.extend(param.render() for param in self._parameters)
        parts.extend(self._extra_args)
        command = " ".join(parts)

        logger.debug("Built command", component=component.qualified_name, command=command)
        return command
