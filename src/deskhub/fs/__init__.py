"""Filesystem helpers shared by deskhub modules."""
