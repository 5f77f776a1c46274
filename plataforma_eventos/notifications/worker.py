"""
Worker de e-mail em threads do próprio processo.

`push_job` entrega um id recém-criado para envio imediato; quando a fila em
memória está vazia as threads reivindicam pendentes vencidos no banco, o que
cobre jobs deixados por processos sem worker e as retentativas com backoff.
"""

import threading
import time
import logging
from queue import Queue, Full, Empty
from .models import EmailJob


logger = logging.getLogger(__name__)

_worker_started = False
_job_queue: Queue | None = None


def _send_job(job: EmailJob):
    """Envia um job já reivindicado (status 'sending') e registra o resultado."""
    from .services import _montar_mensagem
    try:
        msg = _montar_mensagem(job.to_email, job.subject, job.text_body, job.html_body)
        msg.send(fail_silently=False)
        job.marcar_enviado()
    except Exception as e:
        job.marcar_falha(e)
        logger.warning('Falha ao enviar EmailJob %s (tentativa %s): %s', job.pk, job.retries, e)


def _try_claim_one_pending():
    return EmailJob.reivindicar_proximo()


def push_job(job_id: int):
    """Coloca o id na fila em memória. False se não há worker neste processo ou a fila está cheia."""
    if _job_queue is None:
        return False
    try:
        _job_queue.put(job_id, block=False)
        return True
    except Full:
        return False


def start_background_worker(interval_seconds: int = 5, num_threads: int = 1):
    global _worker_started, _job_queue
    if _worker_started:
        return
    _job_queue = Queue(maxsize=1000)

    def worker_loop(idx: int):
        while True:
            try:
                job = None
                try:
                    job_id = _job_queue.get(block=False)
                    job = EmailJob.objects.filter(pk=job_id).first()
                except Empty:
                    job = None

                if job is None:
                    job = _try_claim_one_pending()
                if job is None:
                    time.sleep(interval_seconds)
                    continue
                _send_job(job)
            except Exception:
                logger.exception('EmailWorker-%s: erro no loop', idx)
                time.sleep(interval_seconds)

    for i in range(max(1, num_threads)):
        t = threading.Thread(target=worker_loop, args=(i,), name=f'EmailWorker-{i}', daemon=True)
        t.start()

    _worker_started = True
    logger.info('Worker de e-mail iniciado (%s thread(s))', max(1, num_threads))


def send_job_now(job_id: int):
    """Envia um pendente agora: pela fila se houver worker, senão na thread atual."""
    job = EmailJob.objects.filter(pk=job_id).first()
    if job is None or job.status != EmailJob.PENDING:
        return False
    if push_job(job.id):
        return True
    claimed = EmailJob.reivindicar(job.pk)
    if claimed is None:
        return False
    _send_job(claimed)
    return True
