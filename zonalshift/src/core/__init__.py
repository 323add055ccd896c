"""
Core reconciliation modules

Import submodules directly (core.reconciler, core.zones, ...); database
imports core.errors, so this package stays free of eager imports.
"""
