"""
ddui/features/inventory/service.py

Inventory discovery: walks ``<scan_root>/<host>/<stack>`` and classifies
each stack.

Classification is shallow (the stack directory itself, never below it):
- type: "compose" when a compose manifest sits in the directory, else "script"
- sops: at least one file follows the sops secret naming convention

Filesystem errors never escape. A host that cannot be listed is reported
with no stacks; a stack that cannot be read is dropped. Names that are not
valid UTF-8 are decoded lossily so the result always serializes.
"""

import logging
import os
import time
from typing import List, Optional

from ddui.core.logging import latency_bucket_ms
from ddui.core.metrics import inventory_hosts, inventory_scans_total
from ddui.models.inventory import Host, Inventory, Stack, StackType


logger = logging.getLogger(__name__)

COMPOSE_MANIFESTS = ("docker-compose.yaml", "docker-compose.tpl.yaml")
SOPS_SUFFIX = ".env.sops"
SOPS_INFIX = ".sops."


def _list_dirs(path: str) -> List[os.DirEntry]:
    """Immediate subdirectories of ``path``, sorted by name.

    Raises OSError when ``path`` itself cannot be listed. Entries whose type
    cannot be determined are skipped.
    """
    with os.scandir(path) as it:
        entries = sorted(it, key=lambda e: e.name)

    dirs = []
    for entry in entries:
        try:
            if entry.is_dir():
                dirs.append(entry)
        except OSError as exc:
            logger.debug("[inventory] skipping entry", extra={"path": entry.path, "error": str(exc)})
    return dirs


def is_sops_filename(name: str) -> bool:
    lowered = name.lower()
    return lowered.endswith(SOPS_SUFFIX) or SOPS_INFIX in lowered


def classify_stack_type(stack_dir: str) -> StackType:
    """Return "compose" if a compose manifest exists directly in ``stack_dir``."""
    for manifest in COMPOSE_MANIFESTS:
        if os.path.exists(os.path.join(stack_dir, manifest)):
            return "compose"
    return "script"


def has_sops_secrets(stack_dir: str) -> bool:
    """True if a regular file directly in ``stack_dir`` looks like a sops secret.

    Stops at the first match. Raises OSError when the directory cannot be
    listed; individual unreadable entries are ignored.
    """
    with os.scandir(stack_dir) as it:
        for entry in it:
            if not is_sops_filename(entry.name):
                continue
            try:
                if entry.is_file(follow_symlinks=False):
                    return True
            except OSError:
                continue
    return False


def display_name(raw: str) -> str:
    """Filesystem name as valid UTF-8 text; undecodable bytes become U+FFFD."""
    return os.fsencode(raw).decode("utf-8", "replace")


def _scan_stack(entry: os.DirEntry) -> Optional[Stack]:
    path = os.path.abspath(entry.path)
    try:
        sops = has_sops_secrets(path)
    except OSError as exc:
        logger.debug("[inventory] skipping stack", extra={"path": display_name(path), "error": str(exc)})
        return None

    return Stack(
        name=display_name(entry.name),
        type=classify_stack_type(path),
        path=display_name(path),
        sops=sops,
        containers=[],
    )


def _scan_host(entry: os.DirEntry) -> Host:
    name = display_name(entry.name)
    try:
        stack_entries = _list_dirs(entry.path)
    except OSError as exc:
        # The host still exists; only its stacks are unknown.
        logger.debug("[inventory] host unreadable", extra={"path": display_name(entry.path), "error": str(exc)})
        return Host(host=name, groups=[], stacks=[])

    stacks = []
    for stack_entry in stack_entries:
        stack = _scan_stack(stack_entry)
        if stack is not None:
            stacks.append(stack)
    return Host(host=name, groups=[], stacks=stacks)


def discover_inventory(scan_root: str, *, max_hosts: Optional[int] = None) -> Inventory:
    """Build the inventory from the current state of ``scan_root``.

    Never raises for filesystem reasons: a missing or unreadable root yields
    an empty inventory, an unreadable host is listed without stacks, and an
    unreadable stack is left out.

    Args:
        scan_root: Directory whose subdirectories are hosts
        max_hosts: Licensed host limit; exceeding it is logged, not enforced

    Returns:
        Inventory with hosts and stacks sorted by name
    """
    start = time.perf_counter()
    root = os.path.abspath(scan_root)

    try:
        host_entries = _list_dirs(root)
    except OSError as exc:
        logger.info("[inventory] scan root unavailable", extra={"scan_root": root, "error": str(exc)})
        host_entries = []

    hosts = [_scan_host(host_entry) for host_entry in host_entries]

    inventory = Inventory(hosts=hosts)
    duration_ms = (time.perf_counter() - start) * 1000

    inventory_scans_total.inc()
    inventory_hosts.set(len(hosts))
    logger.info(
        "inventory.scan",
        extra={
            "scan_root": root,
            "hosts": len(hosts),
            "stacks": inventory.stack_count,
            "latency_bucket": latency_bucket_ms(duration_ms),
        },
    )

    if max_hosts is not None and len(hosts) > max_hosts:
        logger.warning(
            "inventory.max_hosts_exceeded",
            extra={"hosts": len(hosts), "max_hosts": max_hosts},
        )

    return inventory
