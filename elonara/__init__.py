"""Elonara trust circles: peer-link graph, circle classification and feeds."""
