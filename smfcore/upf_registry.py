"""Registry of user plane functions and of PFCP requests awaiting a reply."""

from __future__ import annotations

import logging
import socket
import threading
from dataclasses import dataclass, field
from enum import IntEnum
from ipaddress import IPv4Address, IPv6Address, ip_address
from typing import Any, Optional, Union

log = logging.getLogger(__name__)

IpAddress = Union[IPv4Address, IPv6Address]

_UNSPECIFIED_IPV4 = IPv4Address(0)


class UpfState(IntEnum):
    NOT_ASSOCIATED = 0
    ASSOCIATED_SETTING_UP = 1
    ASSOCIATED_SETUP_SUCCESS = 2


class NodeIdType(IntEnum):
    """PFCP node identifier types."""

    IPV4_ADDRESS = 0
    IPV6_ADDRESS = 1
    FQDN = 2


@dataclass(frozen=True)
class NodeId:
    """A PFCP node identifier: an address in binary form or a domain name."""

    node_id_type: NodeIdType
    value: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "node_id_type", NodeIdType(self.node_id_type))
        object.__setattr__(self, "value", bytes(self.value))

    def resolve_ip(self) -> Optional[IpAddress]:
        """The node's IP address; a name that cannot be resolved gives 0.0.0.0."""
        if self.node_id_type is NodeIdType.IPV4_ADDRESS:
            return IPv4Address(self.value) if len(self.value) == 4 else None
        if self.node_id_type is NodeIdType.IPV6_ADDRESS:
            return IPv6Address(self.value) if len(self.value) == 16 else None
        try:
            infos = socket.getaddrinfo(self.value.decode("ascii"), None)
        except (OSError, UnicodeDecodeError):
            return _UNSPECIFIED_IPV4
        if not infos:
            return _UNSPECIFIED_IPV4
        host = str(infos[0][4][0]).split("%", 1)[0]
        try:
            return ip_address(host)
        except ValueError:
            return _UNSPECIFIED_IPV4


def _name(node_id: NodeId) -> str:
    return node_id.value.decode("latin-1")


def _ipv4_bytes(address: Optional[IpAddress]) -> Optional[bytes]:
    if isinstance(address, IPv4Address):
        return address.packed
    if isinstance(address, IPv6Address) and address.ipv4_mapped is not None:
        return address.ipv4_mapped.packed
    return None


@dataclass(eq=False)
class UpNode:
    """A user plane function known to the adapter."""

    upf_name: str
    node_id: NodeId
    an_ip: Optional[IpAddress] = None
    state: UpfState = UpfState.NOT_ASSOCIATED
    last_asso_rsp: Any = None
    last_hb_rsp: Any = None
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)

    def preserve_association_response(self, response: Any) -> None:
        log.debug("storing pfcp association response for upf [%s] ", self.upf_name)
        with self.lock:
            self.last_asso_rsp = response

    def preserve_heartbeat_response(self, response: Any) -> None:
        log.debug("storing pfcp heartbeat response for upf [%s] ", self.upf_name)
        with self.lock:
            self.last_hb_rsp = response


class UpfRegistry:
    """The user plane functions, keyed by node identifier value."""

    def __init__(self) -> None:
        self.upfs: dict[str, UpNode] = {}
        self._lock = threading.RLock()

    def is_associated(self, node_id: NodeId) -> bool:
        with self._lock:
            upf = self.upfs.get(_name(node_id))
            if upf is None:
                log.debug("upf:[%s] not configured yet", _name(node_id))
                return False
            associated = upf.state is UpfState.ASSOCIATED_SETUP_SUCCESS
            log.debug("upf:[%s] %s", _name(node_id), "associated" if associated else "not associated")
            return associated

    def get_by_node_id(self, node_id: NodeId) -> Optional[UpNode]:
        """Find a UPF by address (against its resolved IP) or by domain name."""
        with self._lock:
            for upf in self.upfs.values():
                if node_id.node_id_type is NodeIdType.IPV4_ADDRESS:
                    if _ipv4_bytes(upf.an_ip) == node_id.value:
                        return upf
                elif (
                    node_id.node_id_type is NodeIdType.FQDN
                    and upf.node_id.node_id_type is NodeIdType.FQDN
                    and upf.node_id.value == node_id.value
                ):
                    return upf
        log.error("getting upf from node id [%s] failure", node_id)
        return None

    def insert(self, node_id: NodeId) -> UpNode:
        """Add a UPF unless one with this node id exists; return the stored node."""
        name = _name(node_id)
        with self._lock:
            upf = self.upfs.get(name)
            if upf is None:
                upf = UpNode(
                    upf_name=name,
                    node_id=node_id,
                    an_ip=node_id.resolve_ip(),
                    state=UpfState.NOT_ASSOCIATED,
                )
                self.upfs[name] = upf
                log.info("inserting upf node [%s] ", name)
            return upf

    def activate(self, node_id: NodeId) -> Optional[UpNode]:
        """Mark a UPF as associated; None if it is not known."""
        log.info("activating upf node [%s]", node_id)
        upf = self.get_by_node_id(node_id)
        if upf is None:
            log.error("upf node [%s] not found ", node_id)
            return None
        with self._lock:
            upf.state = UpfState.ASSOCIATED_SETUP_SUCCESS
        return upf

    def remove(self, upf_name: str) -> None:
        with self._lock:
            upf = self.upfs.pop(upf_name, None)
        if upf is not None:
            log.info("deleting upf node [%s] ", upf.upf_name)


class PendingTransactions:
    """Waiters for PFCP replies, keyed by sequence number."""

    def __init__(self) -> None:
        self._waiters: dict[int, Any] = {}
        self._lock = threading.Lock()

    def insert(self, seq: int, waiter: Any) -> None:
        log.debug(" inserting transaction with sequence number [%s]", seq)
        with self._lock:
            self._waiters[seq] = waiter

    def pop(self, seq: int) -> Optional[Any]:
        """Remove and return the waiter for a sequence number, or None."""
        with self._lock:
            waiter = self._waiters.pop(seq, None)
        if waiter is None:
            log.error("fetch transaction with sequence number [%s] failure", seq)
        else:
            log.debug("fetch transaction with sequence number [%s] successful", seq)
        return waiter

    def __len__(self) -> int:
        with self._lock:
            return len(self._waiters)

    def __contains__(self, seq: object) -> bool:
        with self._lock:
            return seq in self._waiters