"""Session management building blocks for a 5G core: policy deltas, QoS rule and
flow description encoding, bit rate conversion, error mapping, transactions and
UPF tracking."""

__version__ = "0.1.0"