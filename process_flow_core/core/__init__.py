"""
Núcleo genérico del core.

Contiene las interfaces compartidas por todos los proveedores de LLM
(`abstractions.FlowProvider`).
"""
