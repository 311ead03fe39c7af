from __future__ import annotations

# Clients d'exemple proposés au premier lancement
SAMPLE_CLIENTS = [
    {
        "name": "John Smith",
        "email": "john@example.com",
        "phone": "+1 (555) 123-4567",
        "company": "Acme Corporation",
        "tax_id": "123-45-6789",
        "address": {
            "street": "123 Business Ave",
            "city": "New York",
            "state": "NY",
            "zip_code": "10001",
            "country": "USA",
        },
    },
    {
        "name": "Sarah Johnson",
        "email": "sarah@techsolutions.com",
        "phone": "+1 (555) 987-6543",
        "company": "Tech Solutions Ltd",
        "tax_id": "987-65-4321",
        "address": {
            "street": "456 Innovation Dr",
            "city": "San Francisco",
            "state": "CA",
            "zip_code": "94105",
            "country": "USA",
        },
    },
    {
        "name": "Mike Davis",
        "email": "mike@creativeagency.com",
        "phone": "+1 (555) 456-7890",
        "company": "Creative Agency",
        "tax_id": "456-78-9012",
        "address": {
            "street": "789 Design St",
            "city": "Los Angeles",
            "state": "CA",
            "zip_code": "90001",
            "country": "USA",
        },
    },
]
