"""Quadrotor flight-controller pieces: topic codecs, stick shaping and mixing, RC input, SITL UDP link and shell formatting."""

__version__ = "0.1.0"

__all__ = [
    "rate_control",
    "rc_input",
    "sitl_flatbuffer",
    "sitl_transport",
    "sitl_udp",
    "top_shell",
    "topic_bus",
    "topic_flatbuffer",
    "topic_shell",
]