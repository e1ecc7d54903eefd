"""
clusterctl - Provision and tear down ECS compute clusters on AWS.

This package provides a reconciler that inspects the resources backing a
named cluster, plans the create/delete actions needed, and executes them in
dependency order.
"""

__version__ = "0.1.0"
__author__ = "clusterctl maintainers"
