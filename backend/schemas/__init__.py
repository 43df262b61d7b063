"""Pydantic shapes shared by the analytics services and routers."""
