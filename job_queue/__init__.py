"""
Job Queue: in-process background job dispatch.

Decouples request handling from slow side effects:
- Request handlers ENQUEUE email and click jobs without blocking
- One dispatcher per queue CONSUMES jobs in FIFO order
- Handler failures are isolated; shutdown is cooperative
- Queues live in memory only: jobs still queued at exit are lost
"""
