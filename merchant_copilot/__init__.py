"""Merchant services sales assistant: grounded answers from internal documents."""
