import argparse
import logging
import os

import torch
import torch.nn as nn
import torch.optim as optim
from PIL import Image
from torch.utils.data import DataLoader, Dataset
from tqdm import tqdm

from model.cnn_model import AI_CLASS, REAL_CLASS, AIImageDetectorCNN, build_transform

logger = logging.getLogger(__name__)

IMAGE_SUFFIXES = ('.png', '.jpg', '.jpeg', '.webp', '.bmp')
CLASS_DIRS = (('real', REAL_CLASS), ('ai', AI_CLASS))


class AIImageDataset(Dataset):
    """Images under root_dir/real/ and root_dir/ai/"""

    def __init__(self, root_dir, transform=None):
        self.root_dir = root_dir
        self.transform = transform
        self.samples = []

        for class_name, label in CLASS_DIRS:
            class_dir = os.path.join(root_dir, class_name)
            if not os.path.isdir(class_dir):
                logger.warning("Missing class directory: %s", class_dir)
                continue
            for img_name in sorted(os.listdir(class_dir)):
                if img_name.lower().endswith(IMAGE_SUFFIXES):
                    self.samples.append((os.path.join(class_dir, img_name), label))

    def __len__(self):
        return len(self.samples)

    def __getitem__(self, idx):
        img_path, label = self.samples[idx]
        image = Image.open(img_path).convert('RGB')

        if self.transform:
            image = self.transform(image)

        return image, label


def evaluate(model, loader, criterion, device):
    """Mean loss and accuracy (percent) over a loader"""
    model.eval()
    total_loss = 0.0
    correct = 0
    total = 0

    with torch.no_grad():
        for images, labels in loader:
            images, labels = images.to(device), labels.to(device)
            outputs = model(images)
            total_loss += criterion(outputs, labels).item()
            _, predicted = outputs.max(1)
            total += labels.size(0)
            correct += predicted.eq(labels).sum().item()

    if not total:
        return 0.0, 0.0
    return total_loss / len(loader), 100. * correct / total


def train_model(data_dir, output_path, epochs=20, batch_size=32, learning_rate=0.001,
                backbone='efficientnet_b0', image_size=224, num_workers=4):
    """Train the real/AI classifier and keep the best checkpoint by validation accuracy"""

    device = torch.device('cuda' if torch.cuda.is_available() else 'cpu')
    logger.info("Training on: %s", device)

    train_dataset = AIImageDataset(os.path.join(data_dir, 'train'),
                                   transform=build_transform(image_size, train=True))
    val_dataset = AIImageDataset(os.path.join(data_dir, 'val'),
                                 transform=build_transform(image_size))

    if not len(train_dataset):
        raise ValueError(f"No training images found under {data_dir}/train")

    train_loader = DataLoader(train_dataset, batch_size=batch_size,
                              shuffle=True, num_workers=num_workers)
    val_loader = DataLoader(val_dataset, batch_size=batch_size,
                            shuffle=False, num_workers=num_workers)

    model = AIImageDetectorCNN(num_classes=2, pretrained=True, backbone=backbone)
    model.to(device)

    criterion = nn.CrossEntropyLoss()
    optimizer = optim.AdamW(model.parameters(), lr=learning_rate, weight_decay=0.01)
    scheduler = optim.lr_scheduler.CosineAnnealingLR(optimizer, T_max=epochs)

    os.makedirs(os.path.dirname(output_path) or '.', exist_ok=True)
    best_val_acc = 0.0

    for epoch in range(epochs):
        model.train()
        train_correct = 0
        train_total = 0

        pbar = tqdm(train_loader, desc=f'Epoch {epoch+1}/{epochs}')
        for images, labels in pbar:
            images, labels = images.to(device), labels.to(device)

            optimizer.zero_grad()
            outputs = model(images)
            loss = criterion(outputs, labels)
            loss.backward()
            optimizer.step()

            _, predicted = outputs.max(1)
            train_total += labels.size(0)
            train_correct += predicted.eq(labels).sum().item()

            pbar.set_postfix({
                'loss': f'{loss.item():.4f}',
                'acc': f'{100.*train_correct/train_total:.2f}%'
            })

        val_loss, val_acc = evaluate(model, val_loader, criterion, device)
        logger.info("Epoch %d: validation loss %.4f, accuracy %.2f%%", epoch + 1, val_loss, val_acc)

        if val_acc > best_val_acc:
            best_val_acc = val_acc
            torch.save({
                'epoch': epoch,
                'backbone': backbone,
                'model_state_dict': model.state_dict(),
                'optimizer_state_dict': optimizer.state_dict(),
                'val_acc': val_acc,
            }, output_path)
            logger.info("Model saved to %s (best accuracy %.2f%%)", output_path, best_val_acc)

        scheduler.step()

    logger.info("Training complete. Best validation accuracy: %.2f%%", best_val_acc)
    return best_val_acc


def main():
    # Dataset layout:
    # data/
    #   train/real/  train/ai/
    #   val/real/    val/ai/
    parser = argparse.ArgumentParser(description='Train the real vs AI-generated image CNN')
    parser.add_argument('--data-dir', default='data')
    parser.add_argument('--output', default='model/weights/ai_image_detector.pth')
    parser.add_argument('--epochs', type=int, default=20)
    parser.add_argument('--batch-size', type=int, default=32)
    parser.add_argument('--lr', type=float, default=0.001)
    parser.add_argument('--backbone', choices=AIImageDetectorCNN.BACKBONES, default='efficientnet_b0')
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s [%(name)s] %(message)s')

    train_model(
        data_dir=args.data_dir,
        output_path=args.output,
        epochs=args.epochs,
        batch_size=args.batch_size,
        learning_rate=args.lr,
        backbone=args.backbone,
    )


if __name__ == '__main__':
    main()
