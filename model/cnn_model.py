import torch
import torch.nn as nn
import torchvision.models as models
from torchvision import transforms

# Output index of each class
REAL_CLASS = 0
AI_CLASS = 1

IMAGENET_MEAN = [0.485, 0.456, 0.406]
IMAGENET_STD = [0.229, 0.224, 0.225]


class SpatialAttention(nn.Module):
    """Spatial attention over channel-pooled maps"""

    def __init__(self, kernel_size=7):
        super(SpatialAttention, self).__init__()
        self.conv = nn.Conv2d(2, 1, kernel_size, padding=kernel_size // 2, bias=False)
        self.sigmoid = nn.Sigmoid()

    def forward(self, x):
        pooled = torch.cat([
            torch.mean(x, dim=1, keepdim=True),
            torch.max(x, dim=1, keepdim=True)[0],
        ], dim=1)
        return self.sigmoid(self.conv(pooled))


def _classifier_head(num_features, num_classes):
    return nn.Sequential(
        nn.Dropout(p=0.3),
        nn.Linear(num_features, 256),
        nn.ReLU(inplace=True),
        nn.BatchNorm1d(256),
        nn.Dropout(p=0.3),
        nn.Linear(256, num_classes),
    )


class AIImageDetectorCNN(nn.Module):
    """
    Real photo vs AI-generated image classifier.
    The spatial attention map reweights the input before the backbone so
    local generator artifacts are not averaged away.
    """

    BACKBONES = ('efficientnet_b0', 'resnet50')

    def __init__(self, num_classes=2, pretrained=True, backbone='efficientnet_b0'):
        super(AIImageDetectorCNN, self).__init__()

        if backbone not in self.BACKBONES:
            raise ValueError(f"Unknown backbone: {backbone}")
        self.backbone_name = backbone

        if backbone == 'efficientnet_b0':
            weights = models.EfficientNet_B0_Weights.IMAGENET1K_V1 if pretrained else None
            self.backbone = models.efficientnet_b0(weights=weights)
            num_features = self.backbone.classifier[1].in_features
            self.backbone.classifier = _classifier_head(num_features, num_classes)
        else:
            weights = models.ResNet50_Weights.IMAGENET1K_V1 if pretrained else None
            self.backbone = models.resnet50(weights=weights)
            num_features = self.backbone.fc.in_features
            self.backbone.fc = _classifier_head(num_features, num_classes)

        self.attention = SpatialAttention()

    def forward(self, x):
        x = self.attention(x) * x + x
        return self.backbone(x)

    def predict_proba(self, x):
        """Class probabilities, [real, ai] per row"""
        self.eval()
        with torch.no_grad():
            return torch.softmax(self.forward(x), dim=1)


def build_transform(image_size=224, train=False):
    """Preprocessing shared by training and inference"""
    steps = [transforms.Resize((image_size, image_size))]
    if train:
        steps += [
            transforms.RandomHorizontalFlip(),
            transforms.ColorJitter(brightness=0.1, contrast=0.1),
        ]
    steps += [
        transforms.ToTensor(),
        transforms.Normalize(mean=IMAGENET_MEAN, std=IMAGENET_STD),
    ]
    return transforms.Compose(steps)
