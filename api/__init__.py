"""
API HTTP para process-flow-core.

Esta capa expone endpoints REST sobre el store del core
(process_flow_core.store) para analizar documentos, refinar el árbol
conversando y generar el documento SOP final.

La API está diseñada para ser consumida por:
- UI web (visualizador + chat)
- Scripts de automatización
"""
