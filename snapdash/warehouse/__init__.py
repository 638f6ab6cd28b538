"""Warehouse access: tables, store master and the stock/sales reader."""
