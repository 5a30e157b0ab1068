"""
process_flow_core
=================

Convierte documentos de procedimientos (SOPs) en un árbol tipado
proceso → sub-procesos → tareas → pasos, usando un LLM intercambiable
(Gemini, Azure OpenAI u Ollama), y permite refinarlo conversando.
"""
