"""Map failed command output to a structured error with suggestions.

The server's error text is not a contract, so this is a plain lookup table
of substrings. Longer patterns are tried first so that e.g. "Version not
found" wins over the generic "not found". Text that matches nothing is still
surfaced, with the raw message and no suggestions.
"""

from dataclasses import dataclass

from .errors import ErrorKind, StructuredError
from .models import CommandResult

GENERIC_FAILURE_MESSAGE = "Command failed"


@dataclass(frozen=True)
class ClassificationRule:
    pattern: str
    kind: ErrorKind
    suggestions: tuple[str, ...] = ()
    # Empty means the rule applies to every command.
    commands: tuple[str, ...] = ()

    def applies_to(self, command_name: str | None) -> bool:
        return not self.commands or command_name in self.commands


_IMPORT_FIRST = (
    "Run 'ifsmcp import <zip>' first",
    "Check available versions with 'ifsmcp list'",
)
_GENERATE_LOCALLY = ("Generate the indexes locally with 'ifsmcp setup complete'",)
_NETWORK = (
    "Check your internet connection",
    "Retry the command",
    "Generate the indexes locally with 'ifsmcp setup complete'",
)
_DOWNLOAD_ONLY = ("download",)

DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule("Version not found", ErrorKind.VERSION_NOT_FOUND, _IMPORT_FIRST),
    ClassificationRule(
        "Version directory not found",
        ErrorKind.VERSION_NOT_FOUND,
        ("Import the deployment ZIP for this version before downloading indexes",),
    ),
    ClassificationRule(
        "Please import the version first",
        ErrorKind.VERSION_NOT_FOUND,
        ("Import the deployment ZIP for this version before downloading indexes",),
    ),
    ClassificationRule(
        "not analyzed",
        ErrorKind.NOT_ANALYZED,
        ("Run 'ifsmcp analyze <version>' first",),
    ),
    ClassificationRule(
        "No ZIP file",
        ErrorKind.COMMAND_FAILED,
        ("Select a valid IFS Cloud deployment ZIP file",),
    ),
    ClassificationRule(
        "No release found", ErrorKind.REMOTE_ARTIFACT_MISSING, _GENERATE_LOCALLY, _DOWNLOAD_ONLY
    ),
    ClassificationRule(
        "No combined asset found", ErrorKind.REMOTE_ARTIFACT_MISSING, _GENERATE_LOCALLY, _DOWNLOAD_ONLY
    ),
    ClassificationRule(
        "404", ErrorKind.REMOTE_ARTIFACT_MISSING, _GENERATE_LOCALLY, _DOWNLOAD_ONLY
    ),
    ClassificationRule(
        "not found", ErrorKind.REMOTE_ARTIFACT_MISSING, _GENERATE_LOCALLY, _DOWNLOAD_ONLY
    ),
    ClassificationRule("unable to connect", ErrorKind.NETWORK_FAILURE, _NETWORK, _DOWNLOAD_ONLY),
    ClassificationRule("connection", ErrorKind.NETWORK_FAILURE, _NETWORK, _DOWNLOAD_ONLY),
    ClassificationRule("network", ErrorKind.NETWORK_FAILURE, _NETWORK, _DOWNLOAD_ONLY),
    ClassificationRule("timeout", ErrorKind.NETWORK_FAILURE, _NETWORK, _DOWNLOAD_ONLY),
    ClassificationRule("DNS", ErrorKind.NETWORK_FAILURE, _NETWORK, _DOWNLOAD_ONLY),
    ClassificationRule(
        "Python",
        ErrorKind.DEPENDENCY_INSTALL_FAILED,
        (
            "Ensure Python is installed and accessible",
            "Check that the virtual environment is set up ('ifsmcp install', then Reinstall)",
        ),
    ),
)


class ErrorClassifier:
    def __init__(self, rules: tuple[ClassificationRule, ...] | list[ClassificationRule] = DEFAULT_RULES):
        # sorted() is stable, so equal-length patterns keep table order.
        self._rules = sorted(rules, key=lambda rule: len(rule.pattern), reverse=True)

    @property
    def rules(self) -> list[ClassificationRule]:
        return list(self._rules)

    def match(self, text: str, command_name: str | None = None) -> ClassificationRule | None:
        """First rule whose pattern occurs in ``text``.

        Rules scoped to particular commands are only tried when
        ``command_name`` is one of them.
        """
        if not text:
            return None
        for rule in self._rules:
            if rule.applies_to(command_name) and rule.pattern in text:
                return rule
        return None

    def classify(self, command_name: str, result: CommandResult) -> StructuredError:
        """Classify a failed ``CommandResult``.

        Patterns are matched against stderr, then stdout. The message is the
        stripped stderr, else stdout, else a generic failure message.
        """
        rule = self.match(result.stderr, command_name) or self.match(result.stdout, command_name)
        message = result.stderr.strip() or result.stdout.strip() or GENERIC_FAILURE_MESSAGE

        if rule is None:
            return StructuredError(
                kind=ErrorKind.COMMAND_FAILED,
                message=message,
                originating_command=command_name,
                suggestions=(),
                exit_code=result.exit_code,
            )
        return StructuredError(
            kind=rule.kind,
            message=message,
            originating_command=command_name,
            suggestions=rule.suggestions,
            exit_code=result.exit_code,
        )


__all__ = [
    "GENERIC_FAILURE_MESSAGE",
    "ClassificationRule",
    "DEFAULT_RULES",
    "ErrorClassifier",
]
