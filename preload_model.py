# Download the embedding model at image build time so the first request
# does not wait for it. HF_HOME must be set before sentence_transformers loads.
import os

os.environ["HF_HOME"] = os.path.join(os.getcwd(), ".hf_cache")

from dotenv import load_dotenv
from sentence_transformers import SentenceTransformer

load_dotenv()

model_name = os.getenv("EMBEDDING_MODEL", "sentence-transformers/all-mpnet-base-v2")
print(f"Pre-downloading embedding model: {model_name}")
print(f"Cache directory: {os.environ['HF_HOME']}")
model = SentenceTransformer(model_name)
print(f"Cached {model_name} (dimension {model.get_sentence_embedding_dimension()})")
