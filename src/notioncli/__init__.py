"""notion-cli -- a caching command-line client for the Notion API.

Reads go through a two-tier response cache (in-memory, then
:mod:`diskcache`), and ``notion-cli sync`` keeps a versioned snapshot of the
workspace's databases so that listing and name resolution work offline.

Typical workflow::

    export NOTION_TOKEN=secret_...
    notion-cli sync                    # refresh the workspace snapshot
    notion-cli list                    # offline, from the snapshot
    notion-cli db retrieve "Tasks"     # name resolved through aliases
    notion-cli cache info --json

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware directories, atomic writes, token resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes.
    envelope: JSON success/error envelopes.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"
