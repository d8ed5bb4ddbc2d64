"""
Services for batch resume harvesting.

- base: collaborator interfaces (file source, spreadsheet sink, OCR, tokens)
- resume_parser_service: the batch orchestrator
- google_*: Drive, Sheets and credential implementations
- factory: wiring from settings

Submodules are imported directly (e.g.
``from sourcestack.services.resume_parser_service import ResumeParserService``)
so the parsing package can depend on ``services.base`` without a cycle.
"""
