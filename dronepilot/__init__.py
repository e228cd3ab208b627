"""Autopilot, flight procedures, controller and ground-station logic for quadrotor drones."""

__version__ = "0.1.0"