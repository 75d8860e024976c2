"""Crée des fichiers de démonstration et une config pour relmatch."""

import json
from pathlib import Path

import pandas as pd

DATA_DIR = Path(__file__).parent / "data"
DATA_DIR.mkdir(exist_ok=True)

left = pd.DataFrame({
    "id": ["1", "2", "3", "4", "5"],
    "prenom": ["Graciela", "Juan", "Ruta", "Hélène", "XY"],
    "nom": ["Ruta", "Perez", "Marta", "Dubois", "1 23"],
    "ville": ["Lyon", "Nantes", "Lille", "Nîmes", "Paris"],
})

clients = pd.DataFrame({
    "id": ["9", "10", "11", "12", "13", "14"],
    "prenom": ["Gratiela", "Juan", "Marta", "Helene", "X Y", "Ana"],
    "nom": ["Ruta", "Peres", "Ruta", "Dubois", "123", "Lopez"],
    "code_postal": ["69001", "44000", "59000", "30000", "75001", "13001"],
})

config = {
    "left": {"file": "un.xlsx", "relation": "un"},
    "right": {"file": "clients.csv", "relation": "c"},
    "left_attributes": ["prenom", "nom"],
    "with": "threshold(0.85), suppresssecondbest, legastodetect(prenom, nom), displayleft(*), displayright(id)",
    "target": "m",
    "engine": {"partition_size": 1000, "buffer_size": 500},
}

left.to_excel(DATA_DIR / "un.xlsx", index=False, engine="openpyxl")
clients.to_csv(DATA_DIR / "clients.csv", index=False, sep=";", encoding="utf-8")
(DATA_DIR / "config.json").write_text(json.dumps(config, indent=2, ensure_ascii=False), encoding="utf-8")
print(f"Fichiers créés dans {DATA_DIR}")
print(f"Lancer : relmatch run --config {DATA_DIR / 'config.json'} --output {DATA_DIR / 'resultat.xlsx'}")
