"""
Infrastructure Layer

External collaborators and storage:
- ncbi: PubMed / PMC searches (Entrez) and the ID converter
- sources: Europe PMC REST client and the shared httpx base client
- cache: raw response cache
- storage: CSV tables
"""
