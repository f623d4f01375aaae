#!/usr/bin/env python3
"""
CLI de operación de la cola de re-chequeo de precios.

Uso:
    # Encolar re-chequeos de productos vencidos (un ciclo)
    python scripts/run.py schedule

    # Estado de la cola y últimos jobs
    python scripts/run.py status --limit 5

    # Borrar jobs terminados más allá de la retención
    python scripts/run.py prune

    # Pausar / reanudar los workers
    python scripts/run.py pause
    python scripts/run.py resume
"""

import argparse
import logging
import sys
from pathlib import Path

# Agregar directorio raíz al path
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.config import settings
from api.redis_client import create_redis_connection
from api.supabase_client import SupabaseStore
from api.tasks import build_leases
from price_checker.queue import PriceCheckQueue
from price_checker.scheduler import BatchScheduler


def print_status(queue: PriceCheckQueue, limit: int) -> None:
    status = queue.get_status()
    print("=" * 60)
    print(f"COLA: {status.queue_name}{'  (PAUSADA)' if status.paused else ''}")
    print("=" * 60)
    for state, count in status.counts.model_dump().items():
        print(f"   {state:<10} {count}")

    recent = queue.get_recent_jobs(limit)
    for state in ("active", "completed", "failed"):
        jobs = getattr(recent, state)
        if not jobs:
            continue
        print(f"\n{state.upper()}:")
        for job in jobs:
            detail = job.failure_reason or (job.result and f"updated={job.result.get('updated')} skipped={job.result.get('skipped')}") or ""
            print(f"   {job.id}  intentos={job.attempts}  {detail}")


def main():
    """Función principal."""
    parser = argparse.ArgumentParser(
        description="Operación de la cola de re-chequeo de precios"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("schedule", help="Encola batches para los productos vencidos")
    status_parser = subparsers.add_parser("status", help="Muestra el estado de la cola")
    status_parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Jobs recientes por estado (default: 10)"
    )
    subparsers.add_parser("prune", help="Aplica la retención de jobs terminados")
    subparsers.add_parser("pause", help="Suspende los workers")
    subparsers.add_parser("resume", help="Reanuda los workers")

    args = parser.parse_args()

    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )

    redis_conn = create_redis_connection(settings.redis_url)
    queue = PriceCheckQueue.from_settings(redis_conn, settings)

    try:
        if args.command == "schedule":
            store = SupabaseStore()
            try:
                scheduler = BatchScheduler.from_settings(store, queue, settings, leases=build_leases(redis_conn))
                scheduled = scheduler.schedule_all()
            finally:
                store.close()
            print(f"✅ Batches encolados: {scheduled}")

        elif args.command == "status":
            print_status(queue, args.limit)

        elif args.command == "prune":
            print(f"🧹 Jobs eliminados: {queue.prune()}")

        elif args.command == "pause":
            queue.pause()
            print("⏸️  Workers suspendidos")

        elif args.command == "resume":
            queue.resume()
            print("▶️  Workers reanudados")

    except KeyboardInterrupt:
        print("\n\n⚠️  Proceso interrumpido por el usuario")
        sys.exit(1)
    except Exception as e:
        print(f"\n❌ Error: {e}")
        import traceback
        traceback.print_exc()
        sys.exit(1)
    finally:
        queue.close()

    sys.exit(0)


if __name__ == "__main__":
    main()
