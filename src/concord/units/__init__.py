"""
Capability units.

Every public module in this package exports ``UNIT``, a static
:class:`~concord.framework.registry.UnitDefinition`. The registry discovers
them with ``UnitRegistry.load_package("concord.units")``.
"""
