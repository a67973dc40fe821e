"""Realtime infrastructure (Socket.IO and the event publishers).

Chat, code sessions and notifications share one socket server; domain
services only see the publisher interface.
"""
