"""
Optional CNN scorer. Contributes to classification only when trained
weights are present on disk; without them it stays unloaded and the
heuristics decide alone.
"""

import logging
import os
import threading

import torch

from .cnn_model import AI_CLASS, REAL_CLASS, AIImageDetectorCNN, build_transform

logger = logging.getLogger(__name__)


class NeuralScorer:

    def __init__(self, model_path=None, device='cpu', image_size=224):
        if device == 'cuda' and torch.cuda.is_available():
            self.device = torch.device('cuda')
        else:
            self.device = torch.device('cpu')

        self.image_size = image_size
        self.model_path = model_path
        self.architecture = None
        self.model = None
        self.model_loaded = False
        self.transform = build_transform(image_size)
        self._lock = threading.Lock()

        if model_path:
            self.model_loaded = self._try_load_model(model_path)

        if self.model_loaded:
            self.model.to(self.device)
            self.model.eval()
        else:
            logger.warning("No trained CNN weights loaded; neural scoring disabled")

    def _try_load_model(self, model_path):
        """Attempt to load model from path"""
        if not os.path.exists(model_path):
            logger.info("Model file not found: %s", model_path)
            return False

        try:
            logger.info("Loading model from: %s", model_path)
            checkpoint = torch.load(model_path, map_location=self.device)

            if isinstance(checkpoint, dict) and 'model_state_dict' in checkpoint:
                state_dict = checkpoint['model_state_dict']
            elif isinstance(checkpoint, dict) and 'state_dict' in checkpoint:
                state_dict = checkpoint['state_dict']
            else:
                state_dict = checkpoint

            self.architecture = self._detect_architecture(state_dict)
            logger.info("Detected architecture: %s", self.architecture)

            self.model = AIImageDetectorCNN(num_classes=2, pretrained=False, backbone=self.architecture)
            self.model.load_state_dict(state_dict, strict=False)
            logger.info("Model loaded successfully")
            return True

        except (OSError, RuntimeError, ValueError, KeyError) as e:
            logger.error("Error loading model from %s: %s", model_path, e)
            self.model = None
            return False

    def _detect_architecture(self, state_dict):
        """Detect backbone from state dict keys"""
        keys = ' '.join(state_dict.keys())

        if 'backbone.features' in keys:
            return 'efficientnet_b0'
        if 'layer4' in keys:
            return 'resnet50'
        return 'efficientnet_b0'

    def score(self, ctx):
        """
        Classify the analysis image. Returns None when no model is loaded,
        otherwise ``{isReal, confidence (0..1), aiProbability}``.
        """
        if not self.model_loaded:
            return None

        tensor = self.transform(ctx.image).unsqueeze(0).to(self.device)

        # One forward pass at a time across request threads
        with self._lock:
            probabilities = self.model.predict_proba(tensor)[0]

        ai_prob = probabilities[AI_CLASS].item()
        real_prob = probabilities[REAL_CLASS].item()

        return {
            'isReal': real_prob >= ai_prob,
            'confidence': max(ai_prob, real_prob),
            'aiProbability': round(ai_prob, 4),
        }

    def get_model_info(self):
        info = {
            'device': str(self.device),
            'input_size': self.image_size,
            'gpu_available': torch.cuda.is_available(),
            'gpu_name': torch.cuda.get_device_name(0) if torch.cuda.is_available() else None,
            'model_loaded': self.model_loaded,
            'architecture': self.architecture,
        }

        if self.model is not None:
            info['total_parameters'] = sum(p.numel() for p in self.model.parameters())
            info['trainable_parameters'] = sum(
                p.numel() for p in self.model.parameters() if p.requires_grad
            )

        return info
