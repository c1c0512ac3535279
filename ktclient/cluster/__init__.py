"""
Cluster module for kt-client.

This module provides failover support including:
- Endpoint pool and health-check probes
- Active endpoint selection
- Request dispatch over the cached connection
"""

from .dispatcher import RequestDispatcher
from .selector import EndpointPool, EndpointSelector, probe

__all__ = ["EndpointPool", "EndpointSelector", "RequestDispatcher", "probe"]
