"""MCP Server for simplebackup.

This module provides the SimpleBackupMCPServer class that exposes the backup
actions to AI agents via the Model Context Protocol (MCP).

Tools exposed:
- backup_list: List existing backups, newest first
- backup_siblings: List folders that can be backed up
- backup_create: Back up folders with a label
- backup_delete: Delete backups
- backup_version: Compare installed version with the latest release
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, List, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from simplebackup.actions import ActionOutcome, BackupUtility
from simplebackup.config import (
    Configuration,
    ConfigurationError,
    ValidationError,
    default_configuration,
    parse_config,
    DEFAULT_CONFIG_PATH,
)
from simplebackup.logger import ErrorCode, LoggingError, log_error, setup_logging
from simplebackup.registry import BackupRecord


logger = logging.getLogger(__name__)


def _schema(required: Optional[List[str]] = None, **properties: Dict[str, Any]) -> Dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required or []}


def _string_list(description: str) -> Dict[str, Any]:
    return {"type": "array", "items": {"type": "string"}, "description": description}


TOOLS = [
    Tool(
        name="backup_list",
        description="List existing backups, newest first, with source folder, label and creation time.",
        inputSchema=_schema(),
    ),
    Tool(
        name="backup_siblings",
        description="List the folders next to the app directory that can be backed up.",
        inputSchema=_schema(),
    ),
    Tool(
        name="backup_create",
        description="Back up folders. Each folder is copied to <folder>_<label> in the app directory.",
        inputSchema=_schema(
            required=["folders", "label"],
            folders=_string_list("Folder names from backup_siblings"),
            label={"type": "string", "description": "Label for the backup, e.g. 'before refactor'"},
        ),
    ),
    Tool(
        name="backup_delete",
        description="Delete backups by name.",
        inputSchema=_schema(
            required=["names"],
            names=_string_list("Backup folder names from backup_list"),
        ),
    ),
    Tool(
        name="backup_version",
        description="Compare the installed version with the latest published release.",
        inputSchema=_schema(),
    ),
]


class SimpleBackupMCPServer:
    """
    MCP Server exposing backup actions to AI agents.

    All tools return JSON text. Errors are returned as
    {"error": {"code": ..., "message": ...}}.
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Args:
            config_path: Path to configuration file. Defaults to
                ~/.config/simplebackup/config.toml, or the current directory
                when that file does not exist.
        """
        self.config_path = config_path
        self._utility: Optional[BackupUtility] = None
        self.server = Server("simplebackup")
        self._register_tools()

    def _load_config(self) -> Configuration:
        """
        Raises:
            ConfigurationError: If config file is missing or invalid
            ValidationError: If config values have wrong types
        """
        if self.config_path is None and not DEFAULT_CONFIG_PATH.exists():
            return default_configuration()
        try:
            return parse_config(self.config_path)
        except ConfigurationError as e:
            code = ErrorCode.CONFIG_NOT_FOUND if "not found" in str(e) else ErrorCode.CONFIG_INVALID
            log_error(logger, code, str(e))
            raise
        except ValidationError as e:
            log_error(logger, ErrorCode.CONFIG_INVALID, str(e))
            raise

    def _get_utility(self) -> BackupUtility:
        if self._utility is None:
            config = self._load_config()
            try:
                # stdout carries the protocol, so log to files only
                setup_logging(config=config.logging, console=False)
            except LoggingError as e:
                logger.warning(f"Logging disabled: {e}")
            self._utility = BackupUtility(config)
        return self._utility

    def _error_response(self, code: str, message: str) -> str:
        return json.dumps({
            "error": {
                "code": code,
                "message": message
            }
        }, indent=2)

    def _success_response(self, data: Dict[str, Any]) -> str:
        return json.dumps(data, indent=2, default=str)

    @staticmethod
    def _record_to_dict(record: BackupRecord) -> Dict[str, Any]:
        return {
            "name": record.name,
            "source": record.display.source_name,
            "label": record.display.label,
            "created_at": record.created_at.isoformat(),
        }

    def _outcome_response(self, outcome: ActionOutcome) -> str:
        return self._success_response({
            "success": outcome.success,
            "status": outcome.status,
            "messages": [
                {"text": m.text, "is_error": m.is_error} for m in outcome.messages
            ],
            "created": outcome.created,
            "deleted": outcome.deleted,
            "backups": [self._record_to_dict(r) for r in outcome.backups],
        })

    def _handlers(self) -> Dict[str, Callable[[Dict[str, Any]], Awaitable[str]]]:
        return {
            "backup_list": lambda args: self._tool_backup_list(),
            "backup_siblings": lambda args: self._tool_backup_siblings(),
            "backup_create": lambda args: self._tool_backup_create(
                folders=args.get("folders", []), label=args.get("label", ""),
            ),
            "backup_delete": lambda args: self._tool_backup_delete(names=args.get("names", [])),
            "backup_version": lambda args: self._tool_backup_version(),
        }

    async def dispatch(self, name: str, arguments: Optional[Dict[str, Any]]) -> str:
        """Run tool ``name``; failures come back as error JSON, never as exceptions."""
        handler = self._handlers().get(name)
        if handler is None:
            return self._error_response("UNKNOWN_TOOL", f"Unknown tool: {name}")
        try:
            return await handler(arguments or {})
        except Exception as e:
            log_error(logger, ErrorCode.INTERNAL_ERROR, f"Tool {name} failed: {e}", tool=name)
            return self._error_response("INTERNAL_ERROR", str(e))

    def _register_tools(self):
        @self.server.list_tools()
        async def list_tools() -> List[Tool]:
            return TOOLS

        @self.server.call_tool()
        async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
            return [TextContent(type="text", text=await self.dispatch(name, arguments))]

    async def _tool_backup_list(self) -> str:
        try:
            utility = self._get_utility()
        except (ConfigurationError, ValidationError) as e:
            return self._error_response("CONFIG_ERROR", str(e))

        backups = utility.list_backups()
        return self._success_response({
            "backups": [self._record_to_dict(r) for r in backups],
        })

    async def _tool_backup_siblings(self) -> str:
        try:
            utility = self._get_utility()
        except (ConfigurationError, ValidationError) as e:
            return self._error_response("CONFIG_ERROR", str(e))

        return self._success_response({"folders": utility.sibling_folders()})

    async def _tool_backup_create(self, folders: List[str], label: str) -> str:
        """
        Back up the given folders.

        Copying runs in the default executor so the event loop stays free.
        """
        if not isinstance(folders, list) or not all(isinstance(f, str) for f in folders):
            return self._error_response("INVALID_ARGUMENT", "'folders' must be a list of strings")
        if not isinstance(label, str):
            return self._error_response("INVALID_ARGUMENT", "'label' must be a string")

        try:
            utility = self._get_utility()
        except (ConfigurationError, ValidationError) as e:
            return self._error_response("CONFIG_ERROR", str(e))

        loop = asyncio.get_running_loop()
        outcome = await loop.run_in_executor(
            None,
            lambda: utility.create_backups(folders, label)
        )
        return self._outcome_response(outcome)

    async def _tool_backup_delete(self, names: List[str]) -> str:
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            return self._error_response("INVALID_ARGUMENT", "'names' must be a list of strings")

        try:
            utility = self._get_utility()
        except (ConfigurationError, ValidationError) as e:
            return self._error_response("CONFIG_ERROR", str(e))

        loop = asyncio.get_running_loop()
        outcome = await loop.run_in_executor(
            None,
            lambda: utility.delete_backups(names)
        )
        return self._outcome_response(outcome)

    async def _tool_backup_version(self) -> str:
        try:
            utility = self._get_utility()
        except (ConfigurationError, ValidationError) as e:
            return self._error_response("CONFIG_ERROR", str(e))

        loop = asyncio.get_running_loop()
        info = await loop.run_in_executor(None, utility.version_info)
        return self._success_response({
            "current": info.current,
            "latest": info.latest,
            "status": info.status.value,
            "message": info.message,
            "release_url": info.release_url,
        })

    async def run(self):
        """Start the MCP server using stdio transport."""
        async with stdio_server() as (read_stream, write_stream):
            await self.server.run(
                read_stream,
                write_stream,
                self.server.create_initialization_options()
            )


def run_server(config_path: Optional[Path] = None):
    """
    Entry point for MCP server.

    Called by the CLI `simplebackup mcp-server` command.
    """
    server = SimpleBackupMCPServer(config_path=config_path)
    asyncio.run(server.run())
