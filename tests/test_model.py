import numpy as np
import pytest
import torch
from PIL import Image

from model.cnn_model import AIImageDetectorCNN, build_transform
from model.neural_scorer import NeuralScorer
from train.train_model import AIImageDataset


@pytest.fixture(scope='module')
def untrained_model():
    torch.manual_seed(0)
    return AIImageDetectorCNN(num_classes=2, pretrained=False)


def test_forward_shape_and_probabilities(untrained_model):
    x = torch.randn(2, 3, 64, 64)
    probabilities = untrained_model.predict_proba(x)
    assert probabilities.shape == (2, 2)
    assert torch.allclose(probabilities.sum(dim=1), torch.ones(2), atol=1e-5)


def test_unknown_backbone_rejected():
    with pytest.raises(ValueError):
        AIImageDetectorCNN(pretrained=False, backbone='vgg16')


def test_scorer_without_weights_is_inert(photo_ctx, tmp_path):
    assert NeuralScorer(None).score(photo_ctx) is None

    missing = NeuralScorer(str(tmp_path / 'missing.pth'))
    assert missing.model_loaded is False
    assert missing.get_model_info()['model_loaded'] is False


def test_scorer_loads_checkpoint(untrained_model, photo_ctx, tmp_path):
    path = tmp_path / 'weights.pth'
    torch.save({'model_state_dict': untrained_model.state_dict()}, path)

    scorer = NeuralScorer(str(path), image_size=64)
    assert scorer.model_loaded
    assert scorer.architecture == 'efficientnet_b0'

    result = scorer.score(photo_ctx)
    assert 0.5 <= result['confidence'] <= 1.0
    assert 0.0 <= result['aiProbability'] <= 1.0
    assert scorer.get_model_info()['total_parameters'] > 0


def test_dataset_reads_real_and_ai_folders(tmp_path):
    for name in ('real', 'ai'):
        (tmp_path / name).mkdir()
        Image.fromarray(np.zeros((40, 40, 3), dtype=np.uint8)).save(tmp_path / name / 'a.png')
    (tmp_path / 'real' / 'notes.txt').write_text('skip me')

    dataset = AIImageDataset(str(tmp_path), transform=build_transform(32))
    assert len(dataset) == 2
    assert [label for _, label in dataset.samples] == [0, 1]

    image, label = dataset[1]
    assert image.shape == (3, 32, 32)
    assert label == 1
