"""
Image to PDF Backend - REST API that binds uploaded images into one PDF

This package provides a FastAPI-based web service that accepts a batch of
JPEG, PNG and WebP uploads and returns a single PDF with one page per image,
sized to the image. It is built to run within a tight memory budget:

- Batch limits are checked before any payload is read
- Payloads are streamed in chunks with cooperative yields to the event loop
- Items are processed one at a time, in submission order
- A broken or unsupported item is skipped instead of failing the batch

Key Components:
    - main: FastAPI application and HTTP endpoint definitions
    - service: Per-job wiring of validator, pipeline and assembler
    - pipeline: Item-by-item ingest / decode / compose driver
    - ingest, memory: Chunked reading and memory telemetry
    - dispatch, imaging, document: Format routing, reportlab/Pillow bindings, page composition
    - validation, assembler: Batch admission and output naming
    - configuration, models: OmegaConf settings and data types

Usage:
    Run the API server with:
        uvicorn imagepdf_backend.main:app --reload --host 0.0.0.0 --port 8000

    Or use the console script:
        imagepdf-backend
"""
