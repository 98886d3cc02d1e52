import queue
import socket
from ipaddress import IPv4Address, IPv6Address
from unittest import mock

from smfcore.upf_registry import (
    NodeId,
    NodeIdType,
    PendingTransactions,
    UpfRegistry,
    UpfState,
)

IPV4_NODE = NodeId(NodeIdType.IPV4_ADDRESS, bytes([10, 0, 0, 1]))
FQDN_NODE = NodeId(NodeIdType.FQDN, b"upf.example.com")


def _addrinfo(address):
    return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (address, 0))]


def test_resolve_ipv4():
    assert IPV4_NODE.resolve_ip() == IPv4Address(bytes([10, 0, 0, 1]))


def test_resolve_ipv6():
    raw = IPv6Address("2001:db8::1").packed
    assert NodeId(NodeIdType.IPV6_ADDRESS, raw).resolve_ip() == IPv6Address("2001:db8::1")


def test_node_id_type_is_normalised():
    node = NodeId(0, bytearray([10, 0, 0, 1]))
    assert node.node_id_type is NodeIdType.IPV4_ADDRESS
    assert node == IPV4_NODE


def test_resolve_fqdn():
    with mock.patch("socket.getaddrinfo", return_value=_addrinfo("192.0.2.7")):
        assert FQDN_NODE.resolve_ip() == IPv4Address("192.0.2.7")


def test_unresolvable_fqdn_gives_unspecified_address():
    with mock.patch("socket.getaddrinfo", side_effect=socket.gaierror("no such host")):
        assert FQDN_NODE.resolve_ip() == IPv4Address("0.0.0.0")


def test_insert_then_activate():
    registry = UpfRegistry()
    upf = registry.insert(IPV4_NODE)
    assert upf.state is UpfState.NOT_ASSOCIATED
    assert int(upf.state) == 0
    assert not registry.is_associated(IPV4_NODE)
    assert registry.activate(IPV4_NODE) is upf
    assert upf.state is UpfState.ASSOCIATED_SETUP_SUCCESS
    assert int(upf.state) == 2
    assert registry.is_associated(IPV4_NODE)


def test_insert_twice_keeps_one_node():
    registry = UpfRegistry()
    first = registry.insert(IPV4_NODE)
    second = registry.insert(IPV4_NODE)
    assert first is second
    assert len(registry.upfs) == 1


def test_unknown_node_is_not_associated():
    assert not UpfRegistry().is_associated(IPV4_NODE)


def test_get_by_node_id_matches_resolved_address_of_fqdn_upf():
    registry = UpfRegistry()
    with mock.patch("socket.getaddrinfo", return_value=_addrinfo("10.0.0.1")):
        upf = registry.insert(FQDN_NODE)
    assert registry.get_by_node_id(IPV4_NODE) is upf


def test_get_by_node_id_fqdn():
    registry = UpfRegistry()
    with mock.patch("socket.getaddrinfo", return_value=_addrinfo("192.0.2.7")):
        upf = registry.insert(FQDN_NODE)
    assert upf.upf_name == "upf.example.com"
    assert registry.get_by_node_id(FQDN_NODE) is upf
    assert registry.get_by_node_id(NodeId(NodeIdType.FQDN, b"other.example.com")) is None


def test_activate_unknown_returns_none():
    assert UpfRegistry().activate(IPV4_NODE) is None


def test_remove():
    registry = UpfRegistry()
    with mock.patch("socket.getaddrinfo", return_value=_addrinfo("192.0.2.7")):
        registry.insert(FQDN_NODE)
    registry.remove("upf.example.com")
    assert registry.upfs == {}
    registry.remove("upf.example.com")
    assert registry.upfs == {}


def test_preserve_responses():
    upf = UpfRegistry().insert(IPV4_NODE)
    upf.preserve_association_response({"cause": "accepted"})
    upf.preserve_heartbeat_response({"seq": 7})
    assert upf.last_asso_rsp == {"cause": "accepted"}
    assert upf.last_hb_rsp == {"seq": 7}


def test_pending_transactions_pop_once():
    pending = PendingTransactions()
    waiter = queue.Queue()
    pending.insert(42, waiter)
    assert 42 in pending
    assert pending.pop(42) is waiter
    assert len(pending) == 0
    assert pending.pop(42) is None


def test_pending_transaction_replaced_by_same_sequence():
    pending = PendingTransactions()
    old, new = queue.Queue(), queue.Queue()
    pending.insert(5, old)
    pending.insert(5, new)
    assert len(pending) == 1
    assert pending.pop(5) is new