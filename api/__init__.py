"""
API y clientes externos del worker de precios.

Este paquete contiene la configuración, los clientes de Apify (gateway de
precios), Supabase (store de productos) y Redis (cache), la task RQ que
procesa cada batch y la API REST de operación (estado de la cola, triggers).
"""

__version__ = "1.0.0"
