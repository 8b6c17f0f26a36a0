"""Per-platform installation guidance for missing dependencies."""

import logging

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

PLATFORM_LABELS = {"win32": "Windows", "darwin": "macOS", "linux": "Linux"}


class InstallationGuidance(BaseModel):
    """What the user can do about missing dependencies."""

    platform: str
    missing: list[str]
    automatic_options: list[str] = Field(default_factory=list)
    manual_instructions: list[str] = Field(default_factory=list)
    troubleshooting_tips: list[str] = Field(default_factory=list)


def _normalize(dependency: str) -> str:
    # Binary names map onto their package
    return "mysql" if dependency == "mysqld" else dependency


_WINDOWS_MANUAL = {
    "php": [
        "PHP: Download from https://windows.php.net/download/ "
        "or install via Chocolatey: choco install php",
    ],
    "mysql": [
        "MySQL: Download from https://dev.mysql.com/downloads/mysql/ "
        "or install via Chocolatey: choco install mysql",
    ],
    "wp-cli": [
        "WP-CLI: Download from https://wp-cli.org/ or install via Chocolatey: choco install wp-cli",
    ],
}

_MACOS_MANUAL = {
    "php": ["PHP: brew install php"],
    "mysql": ["MySQL: brew install mysql && brew services start mysql"],
    "wp-cli": ["WP-CLI: brew install wp-cli"],
}

_LINUX_MANUAL = {
    "php": [
        "PHP: Ubuntu/Debian: sudo apt install php php-cli php-mysql",
        "PHP: CentOS/RHEL: sudo yum install php php-cli php-mysql",
        "PHP: Fedora: sudo dnf install php php-cli php-mysqlnd",
    ],
    "mysql": [
        "MySQL: Ubuntu/Debian: sudo apt install mysql-server mysql-client",
        "MySQL: CentOS/RHEL: sudo yum install mysql-server mysql",
        "MySQL: Fedora: sudo dnf install mysql-server mysql",
        "Start service: sudo systemctl start mysql && sudo systemctl enable mysql",
    ],
    "wp-cli": [
        "WP-CLI: Installed automatically into ~/.local/bin",
        "Manual: curl -O https://raw.githubusercontent.com/wp-cli/wp-cli/v2.10.0/phar/wp-cli.phar "
        "&& chmod +x wp-cli.phar && sudo mv wp-cli.phar /usr/local/bin/wp",
    ],
}


def _manual(table: dict[str, list[str]], missing: list[str]) -> list[str]:
    seen: set[str] = set()
    instructions: list[str] = []
    for dependency in missing:
        key = _normalize(dependency)
        if key in seen:
            continue
        seen.add(key)
        instructions.extend(table.get(key, []))
    return instructions


def manual_instructions(platform: str, dependency: str) -> list[str]:
    """Manual install commands for one dependency on one platform."""
    guidance = get_installation_guidance(platform, [dependency])
    return guidance.manual_instructions


def get_installation_guidance(platform: str, missing: list[str]) -> InstallationGuidance:
    """Build guidance for the given platform and missing dependency names."""
    if platform == "win32":
        return InstallationGuidance(
            platform=PLATFORM_LABELS[platform],
            missing=missing,
            automatic_options=[
                "Portable versions are installed automatically (no admin required)",
                "Alternatively, run as Administrator for system-wide installation",
            ],
            manual_instructions=_manual(_WINDOWS_MANUAL, missing),
            troubleshooting_tips=[
                "If automatic installation fails, try running as Administrator",
                "You can install dependencies manually and restart the service",
                "Portable installations are stored in your user profile",
            ],
        )
    if platform == "darwin":
        return InstallationGuidance(
            platform=PLATFORM_LABELS[platform],
            missing=missing,
            automatic_options=[
                "Homebrew is installed if needed (requires password)",
                "Dependencies are installed via Homebrew automatically",
            ],
            manual_instructions=_manual(_MACOS_MANUAL, missing),
            troubleshooting_tips=[
                "If Homebrew installation fails, install it manually first",
                "You may be prompted for your password during installation",
                "Restart Terminal after installation to refresh PATH",
            ],
        )
    if platform == "linux":
        return InstallationGuidance(
            platform=PLATFORM_LABELS[platform],
            missing=missing,
            automatic_options=[
                "WP-CLI can be installed automatically",
                "PHP and MySQL require manual installation via your package manager",
            ],
            manual_instructions=_manual(_LINUX_MANUAL, missing),
            troubleshooting_tips=[
                "Use your distribution's package manager (apt, yum, dnf, etc.)",
                "You may need sudo privileges for installation",
                "Make sure services are started after installation",
            ],
        )
    return InstallationGuidance(
        platform="Unknown",
        missing=missing,
        automatic_options=["Limited automatic installation support"],
        manual_instructions=[
            "Please install the missing dependencies manually:",
            "PHP: Visit https://www.php.net/downloads.php",
            "MySQL: Visit https://dev.mysql.com/downloads/",
            "WP-CLI: Visit https://wp-cli.org/",
        ],
        troubleshooting_tips=[
            "Ensure all binaries are in your system PATH",
            "Restart the application after manual installation",
            "Check official documentation for your operating system",
        ],
    )


def log_installation_guidance(guidance: InstallationGuidance) -> None:
    logger.info("WordPress dependencies installation guide (%s)", guidance.platform)
    logger.info("Missing: %s", ", ".join(guidance.missing))
    for option in guidance.automatic_options:
        logger.info("  automatic: %s", option)
    for instruction in guidance.manual_instructions:
        logger.info("  manual: %s", instruction)
    for tip in guidance.troubleshooting_tips:
        logger.info("  tip: %s", tip)
