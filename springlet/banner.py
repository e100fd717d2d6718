"""
Startup banner printed when an ApplicationContext starts.
"""

import logging

logger = logging.getLogger(__name__)

BANNER = r"""                 _           _      _
 ___ _ __  _ __ (_)_ __   __ _| | ___| |_
/ __| '_ \| '__|| | '_ \ / _` | |/ _ \ __|
\__ \ |_) | |   | | | | | (_| | |  __/ |_
|___/ .__/|_|   |_|_| |_|\__, |_|\___|\__|
    |_|                  |___/
"""

BANNER_RULE = "=" * 42


def banner_text(version: str, banner_path: str = "", show_banner: bool = True) -> str:
    """Render the banner followed by the version line.

    Args:
        version: Version shown in the rule line
        banner_path: File whose content replaces the default banner; an
            unreadable file falls back to the default
        show_banner: False renders only a one-line version marker
    """
    if not show_banner:
        return f"=== springlet === ({version})\n"
    return _banner_body(banner_path) + _version_line(version)


def _banner_body(banner_path: str) -> str:
    if banner_path:
        try:
            with open(banner_path, encoding='utf-8') as f:
                content = f.read()
        except OSError as e:
            logger.warning("Cannot read banner file %s: %s", banner_path, e)
        else:
            if content:
                return content if content.endswith("\n") else content + "\n"
    return BANNER


def _version_line(version: str) -> str:
    if not version or len(version) > len(BANNER_RULE) - 3:
        return BANNER_RULE + "\n"
    return f"{BANNER_RULE[:len(BANNER_RULE) - len(version) - 3]} ({version})\n"


def print_banner(version: str, banner_path: str = "", show_banner: bool = True) -> None:
    logger.info("\n%s", banner_text(version, banner_path, show_banner))
