"""users/ -- Listing queries, registration, profile edits, deletion, and picture uploads.

Layer rule: users/ may import from auth/ and core/, never from api/ or web/.
"""
