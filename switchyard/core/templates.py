"""
Catalogue of well-known MCP servers that can be added in one step.
"""

from dataclasses import dataclass
from typing import Any, Optional

from switchyard.models.extension import ExtensionDefinition, ExtensionKind


@dataclass(frozen=True)
class ExtensionTemplate:
    id: str
    name: str
    description: str
    category: str
    package: str
    required_env: tuple[str, ...] = ()
    optional_env: tuple[str, ...] = ()
    extra_args: tuple[str, ...] = ()

    @property
    def env_keys(self) -> tuple[str, ...]:
        return self.required_env + self.optional_env

    def missing_env(self, env: Optional[dict[str, str]]) -> list[str]:
        env = env or {}
        return [key for key in self.required_env if not env.get(key)]

    def create_definition(
        self,
        env: Optional[dict[str, str]] = None,
        name: Optional[str] = None,
        extra_args: Optional[list[str]] = None,
    ) -> ExtensionDefinition:
        """Command definition running the package through `npx -y`.

        Only the template's own env keys are kept, and empty values dropped.
        """
        environment = {
            key: value for key, value in (env or {}).items()
            if key in self.env_keys and value
        }
        return ExtensionDefinition(
            id=name or self.id,
            kind=ExtensionKind.COMMAND,
            executable="npx",
            arguments=["-y", self.package, *self.extra_args, *(extra_args or [])],
            environment=environment or None,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "package": self.package,
            "required_env": list(self.required_env),
            "optional_env": list(self.optional_env),
        }


def _official(
    id: str, name: str, description: str, category: str,
    required_env: tuple[str, ...] = (), optional_env: tuple[str, ...] = (),
) -> ExtensionTemplate:
    return ExtensionTemplate(
        id=id,
        name=name,
        description=description,
        category=category,
        package=f"@modelcontextprotocol/server-{id}",
        required_env=required_env,
        optional_env=optional_env,
    )


TEMPLATES: list[ExtensionTemplate] = [
    _official("filesystem", "Filesystem", "Read and write local files and directories", "Files"),
    _official("github", "GitHub", "Repositories, issues and pull requests", "API",
              required_env=("GITHUB_TOKEN",)),
    _official("git", "Git", "Local git repository operations", "Version control"),
    _official("postgres", "PostgreSQL", "PostgreSQL database access", "Database",
              required_env=("POSTGRES_CONNECTION_STRING",)),
    _official("sqlite", "SQLite", "SQLite database access", "Database"),
    _official("slack", "Slack", "Slack workspace integration", "Messaging",
              required_env=("SLACK_BOT_TOKEN",), optional_env=("SLACK_TEAM_ID",)),
    _official("brave-search", "Brave Search", "Web search through Brave", "Search",
              required_env=("BRAVE_API_KEY",)),
    _official("google-maps", "Google Maps", "Google Maps API", "Maps",
              required_env=("GOOGLE_MAPS_API_KEY",)),
    _official("puppeteer", "Puppeteer", "Browser automation and screenshots", "Browser"),
    _official("sequential-thinking", "Sequential Thinking", "Structured step-by-step reasoning", "Tools"),
    _official("memory", "Memory", "Knowledge-graph memory store", "Storage"),
    _official("fetch", "Fetch", "HTTP requests and page fetching", "Network"),
]


def find_template(template_id: str) -> Optional[ExtensionTemplate]:
    for template in TEMPLATES:
        if template.id == template_id:
            return template
    return None


def templates_by_category() -> list[tuple[str, list[ExtensionTemplate]]]:
    """Templates grouped by category; categories and names sorted."""
    grouped: dict[str, list[ExtensionTemplate]] = {}
    for template in TEMPLATES:
        grouped.setdefault(template.category, []).append(template)
    return [
        (category, sorted(items, key=lambda t: t.name))
        for category, items in sorted(grouped.items())
    ]
