"""HTTP adapter exposing the commercial analytics core as JSON endpoints."""
