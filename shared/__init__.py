"""
Kube Actuator - Shared Library
==============================

Contracts and utilities shared by the Kube Actuator services:
action schemas, constants, structured logging, retry and HTTP client.
"""

__version__ = "0.1.0"
__author__ = "Kube Actuator Team"
